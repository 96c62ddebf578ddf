from setuptools import setup, find_packages

setup(
    name="relay-mcp-server",
    version="0.1.0",
    description="Model Context Protocol dispatch server",
    author="Relay MCP Developer",
    python_requires=">=3.11",
    packages=find_packages(include=["relay_mcp", "relay_mcp.*"]),
    install_requires=[
        "aiohttp>=3.9.0",
        "pydantic>=2.5.0",
        "orjson>=3.9.0",
        "python-dotenv>=1.0.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.21.0",
        ]
    },
    entry_points={
        "console_scripts": [
            "relay-server=relay_mcp.app:main",
        ],
    },
)
