"""
sshsession - typed SSH sessions, execution streams, SCP and SFTP on Paramiko.
"""

from setuptools import setup, find_packages
from pathlib import Path

readme = Path(__file__).parent / "README.md"
long_description = readme.read_text() if readme.exists() else ""

setup(
    name="sshsession",
    version="0.1.0",
    author="Scott Peterman",
    description="Typed SSH sessions with sync/async execution streams, SCP and SFTP",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["sshsession", "sshsession.*"]),
    python_requires=">=3.10",
    install_requires=[
        "paramiko>=3.0.0",
        "cryptography>=41.0.0",
        "PyYAML>=6.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "black>=23.0.0",
            "mypy>=1.0.0",
        ],
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: System :: Networking",
    ],
    keywords="ssh scp sftp paramiko session",
)
