from typing import Dict

import pytest

from xcfreader.toy_data import make_toy_data


@pytest.fixture(scope="session")
def toy(tmp_path_factory: pytest.TempPathFactory) -> Dict[str, str]:
    return make_toy_data(outdir=tmp_path_factory.mktemp("toy"))
