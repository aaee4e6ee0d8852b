"""
Setup configuration for File Configuration Provider.

Dynamic, file-backed configuration source with hot reload.
"""

from setuptools import setup, find_packages
from pathlib import Path

# Read requirements
requirements_file = Path(__file__).parent / "requirements.txt"
requirements = requirements_file.read_text().strip().split("\n") if requirements_file.exists() else []

# Read long description from README if it exists
readme_file = Path(__file__).parent / "README.md"
long_description = readme_file.read_text() if readme_file.exists() else ""

setup(
    name="file-config-provider",
    version="1.0.0",
    description="Dynamic file-backed configuration provider with directory merging and hot reload",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="NixOS Configuration Team",
    author_email="",
    packages=find_packages(include=["file_provider", "file_provider.*"]),
    install_requires=requirements,
    python_requires=">=3.11",
    entry_points={
        "console_scripts": [
            "file-provider=file_provider.daemon:run",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3.13",
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
            "pytest-cov>=4.0.0",
        ],
    },
)
