from setuptools import setup

setup(name='quickpromise',
      version='0.1',
      description='Promises with thenable adoption and pluggable scheduling.',
      url='http://github.com/loehnertj/quickpromise',
      author='Johannes Loehnert',
      author_email='loehnert.kde@gmx.de',
      license='MIT',
      classifiers=[
        'Development Status :: 3 - Alpha',
        'License :: OSI Approved :: MIT License',
        'Programming Language :: Python :: 3',
        'Topic :: Software Development :: Libraries',
      ],
      packages=['quickpromise'],
      extras_require={
        'test': ['pytest'],
      },
      zip_safe=True)
