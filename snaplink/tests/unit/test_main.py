import pytest
from unittest.mock import patch, MagicMock

from snaplink.errors import ErrorCode, LinkError
from snaplink.geo import NullGeoLocator
from snaplink.main import lifespan, link_error_handler, log_requests, root

@pytest.mark.asyncio
async def test_lifespan():
    mock_app = MagicMock()
    mock_locator = MagicMock()

    with patch('snaplink.main.build_geolocator', return_value=mock_locator) as mock_build:
        async with lifespan(mock_app) as _:
            mock_build.assert_called_once()
            assert mock_app.state.geolocator is mock_locator
            mock_locator.close.assert_not_called()

    # Provider is released on shutdown
    mock_locator.close.assert_called_once()

@pytest.mark.asyncio
async def test_lifespan_default_provider():
    mock_app = MagicMock()

    async with lifespan(mock_app) as _:
        assert isinstance(mock_app.state.geolocator, NullGeoLocator)

@pytest.mark.asyncio
async def test_link_error_handler():
    response = await link_error_handler(MagicMock(), LinkError(ErrorCode.EXPIRED))

    assert response.status_code == 410
    assert b'"error":"EXPIRED"' in response.body

    response = await link_error_handler(MagicMock(), LinkError(ErrorCode.ALIAS_TAKEN, "taken"))
    assert response.status_code == 409
    assert b'"detail":"taken"' in response.body

@pytest.mark.asyncio
async def test_log_requests_middleware():
    mock_request = MagicMock()
    mock_request.url.path = "/links/shorten"
    mock_request.method = "POST"

    mock_response = MagicMock()
    mock_response.status_code = 201

    async def mock_call_next(_):
        return mock_response

    with patch('time.time', side_effect=[100.0, 100.5]):
        with patch('snaplink.main.logger') as mock_logger:
            response = await log_requests(mock_request, mock_call_next)

    assert response == mock_response
    mock_logger.info.assert_called_once()

@pytest.mark.asyncio
async def test_log_requests_skips_redirects():
    mock_request = MagicMock()
    mock_request.url.path = "/abc12345"

    async def mock_call_next(_):
        return MagicMock(status_code=307)

    with patch('snaplink.main.logger') as mock_logger:
        await log_requests(mock_request, mock_call_next)

    mock_logger.info.assert_not_called()

@pytest.mark.asyncio
async def test_root_endpoint():
    result = await root()

    assert result["message"] == "SnapLink API"
    assert result["docs_url"] == "/docs"
    assert "version" in result

def test_error_codes_map_to_http_statuses():
    assert LinkError(ErrorCode.NOT_FOUND).status_code == 404
    assert LinkError(ErrorCode.INACTIVE).status_code == 410
    assert LinkError(ErrorCode.EXPIRED).status_code == 410
    assert LinkError(ErrorCode.PASSWORD_REQUIRED).status_code == 401
    assert LinkError(ErrorCode.PASSWORD_INVALID).status_code == 401
    assert LinkError(ErrorCode.VALIDATION).status_code == 400
    assert LinkError(ErrorCode.PERSISTENCE_FAILURE).status_code == 503
