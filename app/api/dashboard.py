from fastapi import APIRouter, Depends, HTTPException, Request, status

from app.schemas.coin import Coin, Statistic
from app.schemas.dashboard import DashboardState, HoldingUpdate, ReloadResponse, SearchUpdate, SortUpdate
from app.services.pipeline import AggregationPipeline


router = APIRouter(prefix="/dashboard", tags=["dashboard"])


def get_pipeline(request: Request) -> AggregationPipeline:
    pipeline = getattr(request.app.state, "pipeline", None)
    if pipeline is None or pipeline.closed:
        raise HTTPException(status_code=503, detail="Dashboard pipeline not running")
    return pipeline


@router.get("", response_model=DashboardState)
async def get_dashboard(pipeline: AggregationPipeline = Depends(get_pipeline)):
    return pipeline.state()


@router.get("/coins", response_model=list[Coin])
async def get_all_coins(pipeline: AggregationPipeline = Depends(get_pipeline)):
    return pipeline.all_coins.get([])


@router.get("/portfolio", response_model=list[Coin])
async def get_portfolio_coins(pipeline: AggregationPipeline = Depends(get_pipeline)):
    return pipeline.portfolio_coins.get([])


@router.get("/statistics", response_model=list[Statistic])
async def get_statistics(pipeline: AggregationPipeline = Depends(get_pipeline)):
    return pipeline.statistics.get([])


@router.put("/search", response_model=DashboardState)
async def update_search(body: SearchUpdate, apply_now: bool = False, pipeline: AggregationPipeline = Depends(get_pipeline)):
    """
    Set the search text. The change is debounced; pass apply_now=true to
    skip the wait.
    Example: PUT /dashboard/search?apply_now=true {"text": "bt"}
    """
    pipeline.set_search_text(body.text)
    if apply_now:
        pipeline.flush_search()
    return pipeline.state()


@router.put("/sort", response_model=DashboardState)
async def update_sort(body: SortUpdate, pipeline: AggregationPipeline = Depends(get_pipeline)):
    pipeline.set_sort_option(body.option)
    return pipeline.state()


@router.post("/reload", response_model=ReloadResponse, status_code=status.HTTP_202_ACCEPTED)
async def reload_data(pipeline: AggregationPipeline = Depends(get_pipeline)):
    pipeline.reload()
    return ReloadResponse(accepted=True, is_loading=pipeline.is_loading.value)


@router.put("/portfolio/{coin_id}", response_model=list[Coin])
async def update_holding(coin_id: str, body: HoldingUpdate, pipeline: AggregationPipeline = Depends(get_pipeline)):
    """
    Upsert a holding; amount 0 removes the coin from the portfolio.
    Returns the portfolio after the store has emitted.
    """
    await pipeline.set_holding(coin_id, body.amount)
    return pipeline.portfolio_coins.get([])
