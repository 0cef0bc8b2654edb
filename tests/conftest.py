import pytest

import pages


@pytest.fixture
def ddg_html():
    return pages.DDG_RESULTS_HTML


@pytest.fixture
def article_html():
    return pages.ARTICLE_HTML
