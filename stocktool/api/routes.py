import requests
from fastapi import APIRouter, HTTPException, Request, Response
from fastapi.responses import JSONResponse

from stocktool.errors import ShellUrlNotAllowedError
from stocktool.services.quote_aggregator import fatal_response

router = APIRouter()
shell_router = APIRouter()


def _provider_unavailable(request: Request) -> Response:
    message = request.app.state.quote_aggregator_error or 'Quote provider is not configured.'
    result = fatal_response(message)
    return Response(content=result.body, status_code=result.status_code, headers=result.headers)


@router.get('/quotes')
async def get_quotes(request: Request):
    aggregator = request.app.state.quote_aggregator
    if aggregator is None:
        return _provider_unavailable(request)

    result = await aggregator.aggregate()
    return Response(content=result.body, status_code=result.status_code, headers=result.headers)


@router.get('/quotes/{symbol}')
async def get_quote(symbol: str, request: Request):
    aggregator = request.app.state.quote_aggregator
    if aggregator is None:
        return _provider_unavailable(request)

    configured = aggregator.find_symbol(symbol)
    if configured is None:
        raise HTTPException(status_code=404, detail='SYMBOL_NOT_CONFIGURED')

    row = await aggregator.resolve(configured)
    return JSONResponse(content=row.to_payload(), headers={'Cache-Control': aggregator.cache_control()})


@router.get('/metrics/quote')
def quote_metrics(request: Request):
    aggregator = request.app.state.quote_aggregator
    if aggregator is None:
        return {'provider': None, 'provider_error': request.app.state.quote_aggregator_error}
    return aggregator.metrics()


@shell_router.get('/shell/status')
def shell_status(request: Request):
    return request.app.state.offline_worker.status().model_dump()


@shell_router.get('/shell')
async def shell_fetch(url: str, request: Request):
    worker = request.app.state.offline_worker
    try:
        row = await worker.handle_fetch(url)
    except ShellUrlNotAllowedError as exc:
        print(f"[SHELL][url_rejected] url={url}", flush=True)
        raise HTTPException(status_code=400, detail='SHELL_URL_NOT_ALLOWED') from exc
    except requests.RequestException as exc:
        print(f"[SHELL][fetch_failed] url={url} error={exc!r}", flush=True)
        raise HTTPException(status_code=502, detail='SHELL_FETCH_FAILED') from exc
    return Response(content=row.body, status_code=row.status_code, headers=row.headers)
