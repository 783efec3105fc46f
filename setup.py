"""
Setup configuration for the optionbook portfolio engine

Install in development mode:
    pip install -e .[dev]

Install for production:
    pip install .
"""

from setuptools import setup, find_packages
from pathlib import Path

# Read README for long description
readme_file = Path(__file__).parent / 'README.md'
long_description = ""
if readme_file.exists():
    long_description = readme_file.read_text(encoding='utf-8')

setup(
    name="optionbook",
    version="1.0.0",
    description="Pricing and analytics engine for European index option portfolios",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="optionbook developers",
    license="MIT",

    packages=find_packages(exclude=["tests", "tests.*"]),

    # Core dependencies
    install_requires=[
        "numpy>=2.0.2",
        "pandas>=2.3.3",
        "scipy>=1.13.1",
        "PyYAML>=6.0",
    ],

    # Development dependencies
    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "pytest-cov>=4.0.0",
        ],
    },

    # Python version requirement
    python_requires=">=3.9",

    # Package classifiers
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Financial and Insurance Industry",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Office/Business :: Financial :: Investment",
        "Topic :: Scientific/Engineering :: Mathematics",
    ],

    keywords="options black-scholes greeks portfolio pnl payoff drawdown",

    # Include package data
    include_package_data=True,
    package_data={
        "optionbook": ["py.typed"],  # PEP 561 type hint marker
    },

    zip_safe=False,
)
