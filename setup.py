"""
Setup script for cmi5-runtime.

cmi5-runtime is the assignable-unit side of the cmi5 profile: it turns
learner-session events into well-formed xAPI statements and drives the
end-of-attempt moveOn sequence against a Learning Record Store.

1. Statement engine - cmi5 defined/allowed statement assembly
2. Session runtime - launch mode gating, mastery score gating, moveOn
3. LRS client - reference httpx transport for statements, state and profiles
"""

from setuptools import find_packages, setup

setup(
    name="cmi5-runtime",
    version="1.0.0",
    description="cmi5 assignable-unit runtime and xAPI statement builder",
    long_description=open("README.md", encoding="utf-8").read() if __import__("os").path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    author="Right Learning",
    packages=find_packages(include=["cmi5_runtime", "cmi5_runtime.*"]),
    python_requires=">=3.11",
    install_requires=[
        # Config & Validation
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        # HTTP
        "httpx>=0.25.0",
        # Logging
        "loguru>=0.7.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
            "pytest-cov>=4.0.0",
            "ruff>=0.1.0",
            "mypy>=1.0.0",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Education",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Education",
        "Topic :: Education :: Computer Aided Instruction (CAI)",
    ],
    keywords="cmi5 xapi tincan lrs elearning education",
)
