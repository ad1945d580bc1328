import setuptools

from lqgames import __version__


with open('README.md', 'r') as fh:
    long_description = fh.read()

with open('requirements.txt', 'r') as fh:
    requirements = fh.read().splitlines()

if __name__ == '__main__':
    setuptools.setup(
        name='lqgames',
        version=__version__,
        description="Iterative LQ solver for feedback Nash equilibria of "
                    "nonlinear dynamic games",
        long_description=long_description,
        long_description_content_type='text/markdown',
        packages=['lqgames', 'lqgames.game', 'lqgames.solve'],
        python_requires='>=3.8',
        install_requires=requirements,
        extras_require={'test': ['pytest']})
