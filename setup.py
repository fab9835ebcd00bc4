"""Setup configuration for SecureAPI."""

from setuptools import setup, find_packages
from pathlib import Path

# Read the contents of README file
this_directory = Path(__file__).parent
long_description = (this_directory / "README.md").read_text()

setup(
    name="secureapi-cleaner",
    version="0.1.0",
    author="SecureAPI Team",
    author_email="team@secureapi.online",
    description="Remove hardcoded secrets from source archives and move them into configuration",
    long_description=long_description,
    long_description_content_type="text/markdown",
    url="https://secureapi.online",
    packages=find_packages(exclude=["tests", "tests.*"]),
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Topic :: Security",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    python_requires=">=3.10",
    install_requires=[
        "click>=8.1.0",
        "pyyaml>=6.0",
        "pydantic>=2.5.0",
        "python-dotenv>=1.0.0",
    ],
    entry_points={
        "console_scripts": [
            "secureapi=secureapi.cli.main:cli",
        ],
    },
    extras_require={
        "api": [
            "fastapi>=0.109.0",
            "uvicorn[standard]>=0.27.0",
            "redis>=5.0.1",
        ],
        "dev": [
            "pytest>=7.4.4",
            "pytest-cov>=4.1.0",
            "pytest-asyncio>=0.23.3",
            "pytest-mock>=3.12.0",
            "black>=24.1.0",
            "isort>=5.13.2",
            "flake8>=7.0.0",
            "mypy>=1.8.0",
            "httpx>=0.26.0",
            "uvicorn>=0.27.0",
            "fastapi>=0.109.0",
            "redis>=5.0.1",
        ],
    },
    include_package_data=True,
    package_data={
        "secureapi": [
            "config/*.yaml",
            "config/*.yml",
        ],
    },
)
