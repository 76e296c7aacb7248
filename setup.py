"""Minimal setup.py for grain_profit package."""

import os
from pathlib import Path

from setuptools import find_packages, setup

# Read the version from _version.py
__version__ = ""
exec(open(os.path.join("grain_profit", "_version.py")).read())

# Read the README file
this_directory = Path(__file__).parent
long_description = (this_directory / "README.md").read_text(encoding="utf-8")

setup(
    name="grain_profit",
    version=__version__,
    description="Accumulator accrual and yield x price profit scenarios for grain farms",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["grain_profit", "grain_profit.*"]),
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Financial and Insurance Industry",
        "Topic :: Office/Business :: Financial",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.12",
    ],
    python_requires=">=3.10",
    install_requires=[
        "numpy>=2.0",
        "pandas>=2.2",
        "pydantic>=2.11.7",
        "pyyaml>=6.0.2",
    ],
    extras_require={
        "dev": [
            "pytest>=8.4.1",
            "pytest-cov>=6.2.1",
            "pytest-xdist>=3.8.0",
            "pylint>=3.3.8",
            "black>=25.1.0",
            "mypy>=1.17.1",
            "isort>=6.0.1",
            "types-PyYAML>=6.0.0",
        ],
    },
    entry_points={"console_scripts": ["grain-profit=grain_profit.__main__:main"]},
    include_package_data=True,
    zip_safe=False,
)
