"""
agentkg Setup Script

Install with: pip install -e .
Tests: pip install -e ".[test]" && pytest
"""

from setuptools import setup, find_packages

setup(
    name='agentkg',
    version='0.1.0',
    description='Knowledge graph memory for AI agents - GraphRAG over a vector object store',
    packages=find_packages(exclude=['tests', 'tests.*']),
    package_data={
        'agentkg.config': ['*.yaml'],
    },
    install_requires=[
        'structlog>=23.1.0',
        'pyyaml>=6.0.1',
        'numpy>=1.26.0',
        'qdrant-client>=1.12.0',
        'aiohttp>=3.9.0',
        'cachetools>=5.3.0',
    ],
    extras_require={
        'test': [
            'pytest>=7.4.0',
            'pytest-asyncio>=0.21.0',
        ],
    },
    python_requires='>=3.11',
    classifiers=[
        'Development Status :: 3 - Alpha',
        'Intended Audience :: Developers',
        'Intended Audience :: Science/Research',
        'License :: OSI Approved :: MIT License',
        'Programming Language :: Python :: 3.11',
        'Programming Language :: Python :: 3.12',
        'Topic :: Scientific/Engineering :: Artificial Intelligence',
        'Topic :: Database',
    ],
)
