#!/usr/bin/env python3

from setuptools import setup, find_packages
import os

def read_readme():
    if os.path.exists('README.md'):
        with open('README.md', 'r', encoding='utf-8') as f:
            return f.read()
    return "DNS seed for peer discovery"

def read_requirements():
    if os.path.exists('requirements.txt'):
        with open('requirements.txt', 'r') as f:
            return [line.strip() for line in f if line.strip() and not line.startswith('#')]
    return ['twisted>=18.0.0', 'prometheus_client>=0.8.0']

setup(
    name='dns-seed',
    version='1.0.0',
    description='DNS seed handing out peers of a decentralized network',
    long_description=read_readme(),
    long_description_content_type='text/markdown',
    author='DNS Seed Team',
    author_email='admin@example.com',
    url='https://github.com/example/dns-seed',

    packages=find_packages(include=['dns_seed', 'dns_seed.*']),
    include_package_data=True,

    install_requires=read_requirements(),
    extras_require={
        'test': ['pytest>=6.0'],
    },

    entry_points={
        'console_scripts': [
            'dns-seed=dns_seed.main:main',
        ],
    },

    classifiers=[
        'Development Status :: 5 - Production/Stable',
        'Environment :: No Input/Output (Daemon)',
        'Intended Audience :: System Administrators',
        'License :: OSI Approved :: MIT License',
        'Operating System :: POSIX :: Linux',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.9',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
        'Topic :: Internet :: Name Service (DNS)',
        'Topic :: System :: Networking',
    ],

    python_requires='>=3.9',
)
