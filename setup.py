# setup.py
from setuptools import setup, find_packages

setup(
    name="geostake",
    version="0.1.0",
    packages=find_packages(include=["geostake", "geostake.*"]),
    python_requires=">=3.10",
    install_requires=[
        "plyvel",             # LevelDB storage
        "msgpack",            # value encoding
        "cryptography",       # ECDSA caller keys
        "pycryptodome",       # keccak call ids
        "prometheus_client",  # metrics
        "psutil",             # monitoring
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": ["geostake=geostake.tool:main"],
    },
)
