#!/usr/bin/env python3
"""
Setup script for pdfbuilder
"""

from setuptools import setup, find_packages
import os

# Read requirements from requirements.txt
def read_requirements():
    with open('requirements.txt', 'r') as f:
        return [line.strip() for line in f if line.strip() and not line.startswith('#')]

# Read long description from README
def read_long_description():
    if os.path.exists('README.md'):
        with open('README.md', 'r', encoding='utf-8') as f:
            return f.read()
    return "A Python library and CLI that assembles PDF documents with text, images, fonts and links"

setup(
    name="pdfbuilder",
    version="1.0.0",
    description="A Python library and CLI that assembles PDF documents with text, images, fonts and links",
    long_description=read_long_description(),
    long_description_content_type="text/markdown",
    author="Your Name",
    author_email="your.email@example.com",
    url="https://github.com/yourusername/pdfbuilder",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    install_requires=read_requirements(),
    extras_require={
        "test": ["pytest>=7.0.0"],
    },
    python_requires=">=3.8",
    entry_points={
        "console_scripts": [
            "pdfbuilder=pdfbuilder.cli:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Printing",
        "Topic :: Text Processing :: Markup",
        "Topic :: Utilities",
    ],
    keywords="pdf pdf-generation fonts truetype cli python documents",
    include_package_data=True,
    package_data={
        "": ["*.yaml", "*.yml"],
    },
)
