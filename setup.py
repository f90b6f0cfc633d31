#!/usr/bin/env python3
"""
Setup configuration for Cloud Price Aggregator
"""

from setuptools import setup, find_packages
import os

# Read the contents of README file
this_directory = os.path.abspath(os.path.dirname(__file__))
with open(os.path.join(this_directory, 'README.md'), encoding='utf-8') as f:
    long_description = f.read()

# Read requirements
with open(os.path.join(this_directory, 'requirements.txt')) as f:
    requirements = [line.strip() for line in f if line.strip() and not line.startswith('#')]

setup(
    name="cloud-price-aggregator",
    version="1.0.0",
    author="Cloud Pricing Team",
    author_email="admin@example.com",
    description="Aggregated on-demand compute pricing for AWS, Azure, and GCP",
    long_description=long_description,
    long_description_content_type="text/markdown",
    url="https://github.com/example/cloud-price-aggregator",
    package_dir={'': 'src'},
    packages=find_packages(where='src'),
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Information Technology",
        "Intended Audience :: Developers",
        "Topic :: Internet :: WWW/HTTP :: HTTP Servers",
        "Framework :: FastAPI",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    python_requires=">=3.10",
    install_requires=requirements,
    entry_points={
        'console_scripts': [
            'cloud-pricing=cloud_pricing.main:cli',
        ],
    },
    include_package_data=True,
    extras_require={
        'test': [
            'pytest>=7.4.0',
            'pytest-asyncio>=0.24.0',
        ],
        'dev': [
            'pytest>=7.4.0',
            'pytest-asyncio>=0.24.0',
            'black>=23.9.0',
            'isort>=5.12.0',
            'mypy>=1.6.0',
        ],
    },
    keywords="cloud pricing aws azure gcp ec2 compute comparison",
    project_urls={
        "Bug Reports": "https://github.com/example/cloud-price-aggregator/issues",
        "Source": "https://github.com/example/cloud-price-aggregator",
    },
)
