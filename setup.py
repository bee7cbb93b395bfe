"""
Setup script for door-sense
"""

from setuptools import setup, find_packages
import sys
from pathlib import Path

here = Path(__file__).parent.absolute()


# Read version from door_sense/__init__.py
def get_version():
    """Get version from door_sense/__init__.py"""
    version_file = here / "door_sense" / "__init__.py"
    if version_file.exists():
        with open(version_file, 'r') as f:
            for line in f:
                if line.startswith('__version__'):
                    return line.split('=')[1].strip().strip('"').strip("'")
    return "1.0.0"


# Read long description from README
def get_long_description():
    """Get long description from README.md"""
    readme_file = here / "README.md"
    if readme_file.exists():
        with open(readme_file, 'r', encoding='utf-8') as f:
            return f.read()
    return "Door and window state detection from tri-axial accelerometer telemetry"


def get_requirements():
    """Runtime requirements"""
    return [
        "numpy>=1.24.0",
        "pydantic>=2.5.0",
        "pydantic-settings>=2.1.0",
        "sqlalchemy>=2.0.0",
        "click>=8.1.0",
    ]


# Development requirements
def get_dev_requirements():
    """Get development requirements"""
    return [
        "pytest>=7.4.0",
        "pytest-cov>=4.1.0",
        "pytest-mock>=3.12.0",
    ]


# Check Python version
if sys.version_info < (3, 9):
    sys.exit("Python 3.9 or higher is required")

setup(
    name="door-sense",
    version=get_version(),
    description="Door and window state detection from tri-axial accelerometer telemetry",
    long_description=get_long_description(),
    long_description_content_type="text/markdown",

    # Package configuration
    packages=find_packages(include=["door_sense", "door_sense.*"]),

    # Requirements
    python_requires=">=3.9",
    install_requires=get_requirements(),
    extras_require={
        "dev": get_dev_requirements(),
        "test": get_dev_requirements(),
        "postgres": [
            "psycopg2-binary>=2.9.0",
        ],
    },

    # Entry points
    entry_points={
        "console_scripts": [
            "door-sense=door_sense.cli:cli",
        ],
    },

    # Classification
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Home Automation",
        "Topic :: Scientific/Engineering",
    ],

    keywords=[
        "accelerometer", "door", "window", "iot", "sensing", "calibration",
    ],

    zip_safe=False,
    platforms=["any"],
)
