# setup.py
from setuptools import setup, find_packages

install_requires = [
    # --- CONFIG & MODELS ---
    "pydantic>=2.0.0",
    "python-dotenv>=1.0.0",
    "pyyaml>=6.0.0",

    # --- STATE ---
    "duckdb>=0.10.0",

    # --- NETWORK ---
    "httpx>=0.27.0",

    # --- TESTS---
    "pytest-asyncio==1.3.0",
    "pytest"
]

setup(
    name="launchgate",
    version="0.3.0",
    description="First-launch signal collection and redirect handshake",
    packages=find_packages(include=["launchgate", "launchgate.*"]),
    include_package_data=True,
    package_data={"launchgate": ["shared/config/settings/*.yaml"]},
    install_requires=install_requires,
    python_requires=">=3.11",
    entry_points={
        "console_scripts": [
            "launchgate=launchgate.host.main:main",
        ],
    },
)
