from setuptools import setup, find_packages

setup(
    name="foodmarket",
    version="1.2.0",
    packages=find_packages(include=[
        "foodmarket", "foodmarket.*",
        "catalog", "catalog.*",
        "orders", "orders.*",
        "payments", "payments.*",
    ]),
    include_package_data=True,
    install_requires=[
        "Django>=4.2",
        "djangorestframework>=3.14",
        "stripe>=8.0",
        "python-dotenv>=1.0",
        "django-anymail>=10.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0",
            "pytest-django>=4.5",
        ],
    },
    author="Wayne",
    author_email="support@techwithwayne.com",
    description="Order processing and payment reconciliation for a multi-vendor food marketplace (Django).",
    long_description=open("README.md").read(),
    long_description_content_type="text/markdown",
    url="https://techwithwayne.com",
    license="MIT",
    classifiers=[
        "Framework :: Django",
        "Programming Language :: Python :: 3",
        "Operating System :: OS Independent",
        "License :: OSI Approved :: MIT License"
    ],
    python_requires='>=3.9',
)
