import re

import setuptools

with open("pialert_relay/__init__.py", "r") as fh:
    version_tuple = re.search(r"version_tuple = \((\d+), (\d+), (\d+)\)", fh.read()).groups()
__version__ = '.'.join(version_tuple)

with open("README.md", "r") as fh:
    long_description = fh.read()

setuptools.setup(
    name="pialert-relay",
    version=__version__,
    description="Drive a Raspberry Pi relay from PiAlert monitoring alerts",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=setuptools.find_packages(include=["pialert_relay", "pialert_relay.*"]),
    python_requires=">=3.9",
    install_requires=[
        'requests',
        'python-dotenv',
        'pydantic>=2.0',
        'pydantic-settings>=2.0',
        'fastapi',
        'uvicorn',
        'gpiozero',
    ],
    extras_require={
        'test': [
            'pytest',
            'pytest-asyncio',
            'httpx',
        ],
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: POSIX :: Linux",
    ],
)
