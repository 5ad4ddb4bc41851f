from setuptools import setup, find_packages


setup(
    name="fjsys",
    version="0.1",
    packages=find_packages(include=["fjsys", "fjsys.*"]),
    description="Pack and unpack FJSYS visual-novel archives with engine-compatible table order.",
    author="vercingetorx",
    install_requires=[
        "pycryptodomex>=3.23.0",
    ],
    entry_points={
        "console_scripts": [
            "fjsys=fjsys.cli:main",
        ]
    },
)
