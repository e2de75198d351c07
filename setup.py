#!/usr/bin/python3
# -*- coding: utf-8 -*-

from setuptools import setup, find_packages
import os

ROOT = os.path.abspath(os.path.dirname(__file__))

with open(os.path.join(ROOT, 'README.md'), 'r', encoding='utf-8') as f:
    long_description = f.read()

setup(
    name='pyvletoolbox',
    include_package_data=True,
    version='0.1.0',  # Ideally should be same as your GitHub release tag version
    packages=find_packages(exclude=['*.tests', '*.tests.*']),
    description='pyVLEToolbox - A collection of Phase Equilibrium Utilities',
    long_description=long_description,
    long_description_content_type='text/markdown',
    author='Mark W. Burgoyne',
    author_email='mark.w.burgoyne@gmail.com',
    url='https://github.com/mwburgoyne/pyVLEToolbox',
    keywords=['vletoolbox', 'thermodynamics', 'phase equilibrium', 'equation of state'],
    classifiers=[],
    python_requires='>=3.8',
    install_requires=[
        'numpy',
        'scipy',
        'pandas',
        'tabulate',
        'openpyxl',
    ],
    extras_require={
        'test': ['pytest'],
    },
)
