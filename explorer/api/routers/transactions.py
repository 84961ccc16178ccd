from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from starlette.concurrency import run_in_threadpool

from explorer.base import ErrorContextManager, get_service_name
from explorer.api.exceptions import NotFoundError, TransactionNotFoundError
from explorer.api.routers import get_enrichment_service, get_transactions_service
from explorer.api.services.enrichment_service import EnrichmentService
from explorer.api.services.records import FlatTransaction
from explorer.api.services.transactions_service import TransactionsService
from explorer.api.utils.transaction_translator import list_response, serialize_transaction

error_ctx = ErrorContextManager(get_service_name())

router = APIRouter(
    prefix="/transactions",
    tags=["transactions"],
    responses={
        404: {"description": "Not found"},
        422: {"description": "Invalid parameters"},
        500: {"description": "Internal server error"}
    }
)


class NoteInput(BaseModel):
    commitment: str = Field(..., min_length=1, description="Note commitment")


class SpendInput(BaseModel):
    nullifier: str = Field(..., min_length=1, description="Spend nullifier")


class TransactionInput(BaseModel):
    hash: str = Field(..., min_length=1, description="Transaction hash")
    fee: int = Field(..., ge=0, le=2**63 - 1, description="Fee paid by the transaction")
    size: int = Field(..., ge=0, le=2**32 - 1, description="Serialized size in bytes")
    expiration: int = Field(0, ge=0, le=2**32 - 1, description="Sequence after which the transaction expires")
    notes: List[NoteInput] = Field(default_factory=list)
    spends: List[SpendInput] = Field(default_factory=list)
    network_version: int = Field(0, ge=0, le=2**16 - 1)


class UpsertTransactionsRequest(BaseModel):
    transactions: List[TransactionInput] = Field(..., min_length=1, max_length=3000)


async def serialize_views(views, enrichment_service: EnrichmentService):
    data = []
    for view in views:
        asset_descriptions = await enrichment_service.resolve(view.transaction)
        data.append(serialize_transaction(view, asset_descriptions))
    return data


@router.get(
    "/find",
    summary="Get a transaction by hash",
    description=(
        "Returns a single transaction with its asset descriptions. "
        "Set `with_blocks` to also embed the blocks the transaction was included in."
    ),
    responses={
        200: {"description": "Transaction retrieved successfully"},
        404: {"description": "Transaction or one of its assets not found"},
    }
)
async def find_transaction(
    hash: str = Query(..., min_length=1, description="Transaction hash"),
    with_blocks: bool = Query(False, description="Embed the blocks containing the transaction"),
    transactions_service: TransactionsService = Depends(get_transactions_service),
    enrichment_service: EnrichmentService = Depends(get_enrichment_service),
):
    try:
        view = await run_in_threadpool(transactions_service.find, hash, with_blocks)
        if view is None:
            raise TransactionNotFoundError(hash)

        asset_descriptions = await enrichment_service.resolve(view.transaction)
        return serialize_transaction(view, asset_descriptions)
    except NotFoundError:
        raise
    except Exception as e:
        error_ctx.log_error("Error finding transaction", e, operation="find_transaction", hash=hash)
        raise HTTPException(status_code=500, detail=f"Internal server error: {str(e)}")


@router.post(
    "",
    summary="Upsert a batch of transactions",
    description=(
        "Creates or replaces transactions keyed by hash and returns them serialized, "
        "in request order. Requires the API key."
    ),
    include_in_schema=False,
)
async def bulk_create_transactions(
    body: UpsertTransactionsRequest,
    transactions_service: TransactionsService = Depends(get_transactions_service),
    enrichment_service: EnrichmentService = Depends(get_enrichment_service),
):
    try:
        transactions = await run_in_threadpool(
            transactions_service.create_many,
            [item.model_dump() for item in body.transactions]
        )
        views = [FlatTransaction(transaction) for transaction in transactions]
        return list_response(await serialize_views(views, enrichment_service))
    except NotFoundError:
        raise
    except Exception as e:
        error_ctx.log_error(
            "Error upserting transactions", e,
            operation="bulk_create_transactions", transaction_count=len(body.transactions)
        )
        raise HTTPException(status_code=500, detail=f"Internal server error: {str(e)}")


@router.get(
    "",
    summary="List transactions",
    description=(
        "Returns a page of transactions with their asset descriptions. "
        "Filter by `block_hash` to get the transactions of one block in block order, "
        "or by `search` to match part of a transaction hash."
    ),
    responses={
        200: {"description": "Transactions retrieved successfully"},
    }
)
async def list_transactions(
    block_hash: Optional[str] = Query(None, min_length=1, description="Only transactions included in this block"),
    search: Optional[str] = Query(None, min_length=1, description="Part of a transaction hash"),
    with_blocks: bool = Query(False, description="Embed the blocks containing each transaction"),
    page: int = Query(1, ge=1, description="Page number (1-based)"),
    page_size: int = Query(20, ge=1, le=100, description="Number of transactions per page"),
    transactions_service: TransactionsService = Depends(get_transactions_service),
    enrichment_service: EnrichmentService = Depends(get_enrichment_service),
):
    try:
        views = await run_in_threadpool(
            transactions_service.list,
            block_hash=block_hash,
            search=search,
            with_blocks=with_blocks,
            page=page,
            page_size=page_size,
        )
        return list_response(await serialize_views(views, enrichment_service))
    except NotFoundError:
        raise
    except Exception as e:
        error_ctx.log_error(
            "Error listing transactions", e,
            operation="list_transactions", block_hash=block_hash, search=search
        )
        raise HTTPException(status_code=500, detail=f"Internal server error: {str(e)}")
