from setuptools import setup, find_packages

setup(
    name="streamrelay",
    version="0.1.0",
    author="",
    author_email="",
    description="Twitch chat, pubsub and webhook events republished as normalized events for stream overlays",
    long_description=open("README.md", encoding="utf-8").read(),
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: GNU General Public License v3 (GPLv3)",
        "Operating System :: OS Independent",
        "Topic :: Communications :: Chat",
        "Framework :: AsyncIO"
    ],
    python_requires=">=3.10",
    install_requires=[
        "aiohttp",         # oauth/helix requests, oauth redirect server
        "python-dateutil", # date parsing
        "aiofiles",        # async json credential file
        "aiosqlite"        # sqlite credential store
    ],
    extras_require={
        'test': ['pytest', 'pytest-asyncio']
    },
    zip_safe=False,
    license="GNU General Public License v3 (GPLv3)",
    platforms=["any"],
    keywords=[
        "twitch",
        "overlay",
        "pubsub",
        "webhooks",
        "async",
        "alerts",
        "streaming"
    ]
)
