"""Setup script for webops-buildplan."""

from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as f:
    long_description = f.read()

setup(
    name="webops-buildplan",
    version="0.1.0",
    author="WebOps Team",
    author_email="support@webops.dev",
    description="Zero-config build plan generation for WebOps deployments",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["webops_buildplan", "webops_buildplan.*"]),
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    python_requires=">=3.11",
    install_requires=[
        "click>=8.1.0",
        "rich>=13.0.0",
        "PyYAML>=6.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "webops-plan=webops_buildplan.cli:main",
        ],
    },
)
