from setuptools import setup, find_packages

setup(
    name='k1space',
    version='0.1.0',
    packages=find_packages(exclude=['k1space.tests', 'k1space.tests.*']),
    include_package_data=True,
    install_requires=[
        'typer',
        'click',
        'pydantic>=2',
        'pyyaml',
        'jsonschema',
        'python-dotenv',
        'requests',
        'python-hcl2',
    ],
    extras_require={
        'test': [
            'pytest',
        ],
    },
    entry_points={
        'console_scripts': [
            'k1space=k1space.cli:app'
        ]
    },
    description='Interactive configuration manager that generates kubefirst provisioning scripts',
    classifiers=[
        'Programming Language :: Python :: 3',
        'Operating System :: OS Independent',
    ],
    python_requires='>=3.8',
)
