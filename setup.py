"""Setup configuration for wpstack."""

import os
import sys

from setuptools import find_packages, setup

# Get version from package
here = os.path.abspath(os.path.dirname(__file__))
sys.path.insert(0, here)
from wpstack import __author__, __version__  # noqa: E402

# Get the long description from the README file
with open(os.path.join(here, "README.md"), encoding="utf-8") as f:
    long_description = f.read()

setup(
    name="wpstack",
    version=__version__,
    description="Backup, restore and TLS provisioning for a Docker Compose WordPress stack",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author=__author__,
    keywords="wordpress mariadb docker compose backup restore letsencrypt cli",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.8",
    install_requires=[
        "click>=8.0.0",
        "pyyaml>=6.0",
        "docker>=6.0.0",
        "jinja2>=3.0.0",
        "cryptography>=42.0.0",
        "jsonschema>=4.0.0",
        "python-dotenv>=1.0.0",
        "requests>=2.28.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
            "ruff>=0.12.0",
            "mypy>=0.991",
        ],
    },
    entry_points={
        "console_scripts": [
            "wpstack=wpstack.cli:cli",
        ],
    },
)
