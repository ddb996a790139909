from setuptools import setup, find_namespace_packages

# install modules with 
#   `pip install .` 
# or for developers 
#   `pip install .[dev]`
setup(
    name='sts-risk-server',
    version='1.0',
    description='MCP server for STS cardiac surgery risk estimation',
    author='Marie Hoffmann',
    author_email='aieoa-dev@proton.me',
    packages=find_namespace_packages(include=['src', 'src.*']),
    package_data={'src.scoring': ['models/*.yaml']},
    install_requires=[
        'fastmcp',
        'GitPython',
        'numpy',
        'pandas',
        'pyyaml',
    ],
    extras_require={
        "dev": [
            "pytest",
            "pytest-asyncio",
        ]
    }
)
