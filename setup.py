"""
Setup script for the OpenBCI ERP analysis package
"""

from setuptools import setup, find_packages

# Read the README file
def read_readme():
    with open("README.md", "r", encoding="utf-8") as fh:
        return fh.read()

# Read requirements
def read_requirements():
    with open("requirements.txt", "r", encoding="utf-8") as fh:
        return [line.strip() for line in fh if line.strip() and not line.startswith("#")]

setup(
    name="openbci-erp",
    version="1.0.0",
    description="Target / non-target ERP extraction from OpenBCI oddball recordings",
    long_description=read_readme(),
    long_description_content_type="text/markdown",
    packages=find_packages(include=["erp_analysis", "erp_analysis.*"]),
    py_modules=["analyze"],
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Science/Research",
        "Topic :: Scientific/Engineering :: Medical Science Apps.",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
    ],
    python_requires=">=3.10",
    install_requires=read_requirements(),
    extras_require={
        "test": ["pytest>=7.0"],
    },
    entry_points={
        "console_scripts": [
            "erp-analyze=analyze:main",
        ],
    },
    include_package_data=True,
    zip_safe=False,
)
