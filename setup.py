# Copyright © 2025 Token Migration

import re
import os
import codecs
from os import path
from io import open
from setuptools import setup, find_packages


here = path.abspath(path.dirname(__file__))

with open(path.join(here, "README.md"), encoding="utf-8") as f:
    long_description = f.read()

with codecs.open(os.path.join(here, "token_migration/__init__.py"), encoding="utf-8") as init_file:
    version_match = re.search(r"^__version__ = ['\"]([^'\"]*)['\"]", init_file.read(), re.M)
    if not version_match:
        raise RuntimeError("Unable to find version string in token_migration/__init__.py")
    version_string = version_match.group(1)


requirements = [
    # HTTP and networking
    "aiohttp>=3.9.5",
    "httpx>=0.28.1",

    # Configuration
    "python-dotenv>=1.0.0",

    # Models
    "pydantic>=2.0.0",

    # Utilities
    "click>=8.1.0",

    # Supabase
    "supabase>=2.0.0",
    "postgrest>=0.13.0",

    # Merkle leaf encoding (keccak256 + abi.encodePacked)
    "eth-utils>=2.0.0",
    "eth-abi>=4.0.0",
    "eth-hash[pycryptodome]>=0.5.0",

    # Solana address decoding
    "base58>=2.1.0",
]

test_requirements = [
    "pytest>=7.4.0",
    "pytest-asyncio>=0.21.0",
]

setup(
    name="token_migration",
    version=version_string,
    description="Balance snapshot, claim allocation and Merkle proof pipeline for a Solana to EVM token migration",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="Token Migration Team",
    license="MIT",
    packages=find_packages(include=['token_migration', 'token_migration.*', 'migration_canonical', 'migration_canonical.*']),
    include_package_data=True,
    python_requires=">=3.8",
    install_requires=requirements,
    extras_require={
        "test": test_requirements,
    },
    entry_points={
        "console_scripts": [
            "token-migration=token_migration.cli:main"
        ]
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3 :: Only",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Topic :: Internet :: WWW/HTTP",
        "Topic :: Security :: Cryptography"
    ],
)
