import time

import pytest

# Well-known development account of the Azure storage emulator.
AZURITE_ACCOUNT = "devstoreaccount1"
AZURITE_KEY = (
    "Eby8vdM02xNOcqFlqUwJPLlmEtlCDXJ1OUzFT50uSRZ6IFsuFq2UVErCz4I6tq/K1SZFPTOtr/KBHBeksoGMGw=="
)


def pytest_addoption(parser):
    parser.addoption(
        "--network",
        action="store_true",
        default=False,
        help="run tests that require network access",
    )


def pytest_collection_modifyitems(config, items):
    if config.getoption("--network"):
        # --network given: do not skip network tests
        return
    skip_network = pytest.mark.skip(reason="need --network option to run")
    for item in items:
        if "network" in item.keywords:
            item.add_marker(skip_network)


@pytest.fixture(scope="session")
def azurite():
    import docker

    client = docker.from_env()
    port = 10000
    azurite_container = client.containers.run(
        "mcr.microsoft.com/azure-storage/azurite",
        "azurite-blob --blobHost 0.0.0.0 --blobPort 10000 --skipApiVersionCheck",
        detach=True,
        ports={f"{port}/tcp": port},
    )
    time.sleep(3)  # give it time to boot
    # enter
    yield {
        "port": port,
        "endpoint": f"http://127.0.0.1:{port}/{AZURITE_ACCOUNT}",
        "account": AZURITE_ACCOUNT,
        "key": AZURITE_KEY,
    }
    # exit
    azurite_container.stop()
    azurite_container.remove()


@pytest.fixture(scope="session")
def azurite_container(azurite):
    from azure.storage.blob import BlobServiceClient

    container = "remote-files"
    connection_string = (
        "DefaultEndpointsProtocol=http;"
        f"AccountName={azurite['account']};"
        f"AccountKey={azurite['key']};"
        f"BlobEndpoint={azurite['endpoint']};"
    )
    client = BlobServiceClient.from_connection_string(connection_string)
    client.create_container(container)
    yield {**azurite, "container": container}
