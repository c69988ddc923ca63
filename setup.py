from setuptools import find_packages, setup

setup(
    name="buildkite-cloudwatch-metrics",
    version="0.1.0",
    packages=find_packages(
        include=[
            "bk_common",
            "bk_common.*",
            "bk_client",
            "bk_client.*",
            "bk_metrics",
            "bk_metrics.*",
            "bk_collector",
            "bk_collector.*",
            "bk_cli",
            "bk_cli.*",
        ]
    ),
    install_requires=[
        "requests>=2.31.0",
        "boto3>=1.28.0",
        "click>=8.1.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "pytest-xdist>=3.3.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "buildkite-metrics=bk_cli.cli:cli",
            "buildkite-metrics-collector=bk_collector.__main__:main",
        ],
    },
    python_requires=">=3.11",
)
