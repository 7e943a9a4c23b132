"""
A sync engine mirroring ticketing smart contract events into a relational store
"""

from setuptools import find_packages, setup

with open("README.md", encoding="utf-8") as f:
    long_description = f.read()

with open("requirements.txt", encoding="utf-8") as f:
    requirements = [
        line for line in f.read().splitlines() if line and not line.startswith("#")
    ]

setup(
    name="ticketsync",
    version="0.0.1",
    description="Mirror ticketing smart contract events into a relational store",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(),
    package_data={
        "": ["../requirements.txt"],
        "ticketsync": ["abi/*.json"],
    },
    install_requires=requirements,
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": ["ticketsync=ticketsync.cli:cli"],
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "Operating System :: OS Independent",
    ],
    python_requires=">=3.8",
)
