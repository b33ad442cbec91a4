from setuptools import setup, find_packages

setup(
    name='ragcrawl',
    version='0.1.0',
    packages=find_packages(exclude=['tests', 'tests.*']),
    include_package_data=True,
    install_requires=[
        'httpx>=0.25',
        'beautifulsoup4>=4.12',
        'pydantic>=2.0',
        'pydantic-settings>=2.0',
        'python-dotenv>=1.0',
    ],
    extras_require={
        'test': [
            'pytest>=7.0',
            'pytest-asyncio>=0.21',
        ],
    },
    description='A polite web and GitHub crawler that chunks, embeds and indexes content for retrieval.',
    long_description=open('README.md').read(),
    long_description_content_type='text/markdown',
    classifiers=[
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.9',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
        'Operating System :: OS Independent',
    ],
    python_requires='>=3.9',
)
