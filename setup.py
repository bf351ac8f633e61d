from setuptools import setup, find_packages

setup(
    name="smartroute",
    version="0.1.0",
    description="Chat message dispatcher routing between MCP tool agents and a direct LLM",
    package_dir={"": "src"},
    packages=find_packages("src"),
    python_requires=">=3.10",
    install_requires=[
        "fastapi>=0.111.0",
        "uvicorn[standard]>=0.22.0",
        "pydantic>=2.7.1",
        "python-dotenv>=1.0.1",
        "requests>=2.31.0",
        "pyyaml>=6.0",
        "langchain-core>=0.2.0",
        "langchain-openai>=0.1.0",
        "langchain-anthropic>=0.1.0",
        "langgraph>=0.2.0",
        "mcp>=1.24.0,<2",
        "httpx>=0.27",
    ],
    extras_require={
        "test": [
            "pytest>=7.4",
        ],
    },
    entry_points={
        "console_scripts": [
            "smartroute=smartroute.app:main",
        ],
    },
    include_package_data=True,
    classifiers=[
        "Programming Language :: Python :: 3",
        "Operating System :: OS Independent",
    ],
)
