from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional

from web3 import Web3

from ..blocks import BlockChannel, NewHeadsSubscription, PollingHeadSource
from ..chain_client import BlockHeader, ChainClient
from .addresses import KYBER_ETH_ADDRESS, resolve_addresses
from .config import BotConfig, ExecutionMode
from .dex.kyber import KyberQuoter
from .dex.uniswap_v2 import UniswapV2PairQuoter
from .evaluator import ArbitrageOpportunity, OpportunityEvaluator
from .executor import FlashloanExecutor
from .gas import GasOracle
from .pricing import EthPriceFeed, SharedPrice
from .state import BotState

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

_LOGGING_CONFIGURED = False


def configure_flash_arb_logging(level: int = logging.INFO) -> None:
    """
    Give the 'flash_arb' package logger a single StreamHandler.

    Module loggers under flash_arb.* lose any handlers of their own and
    inherit the package level, so every record is printed exactly once.
    """
    global _LOGGING_CONFIGURED
    pkg = logging.getLogger("flash_arb")
    pkg.setLevel(level)
    if _LOGGING_CONFIGURED:
        return

    pkg.handlers = [h for h in pkg.handlers if type(h) is not logging.StreamHandler]
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    pkg.addHandler(handler)
    pkg.propagate = False

    for name, obj in logging.root.manager.loggerDict.items():
        if isinstance(obj, logging.Logger) and name.startswith("flash_arb."):
            obj.handlers = []
            obj.propagate = True
            obj.setLevel(logging.NOTSET)

    _LOGGING_CONFIGURED = True


@dataclass
class BotComponents:
    client: ChainClient
    kyber: KyberQuoter
    uniswap: UniswapV2PairQuoter
    evaluator: OpportunityEvaluator
    shared_price: SharedPrice
    price_feed: EthPriceFeed
    executor: Optional[FlashloanExecutor] = None


def build_components(config: BotConfig, client: ChainClient) -> BotComponents:
    addresses = resolve_addresses(config.network)
    web3: Web3 = client.web3

    kyber = KyberQuoter(
        web3,
        proxy_address=addresses.kyber_network_proxy,
        dai_address=addresses.dai,
        eth_address=KYBER_ETH_ADDRESS,
    )
    uniswap = UniswapV2PairQuoter(
        web3,
        pair_address=addresses.uniswap_dai_weth_pair,
        dai_address=addresses.dai,
        weth_address=addresses.weth,
    )

    executor: Optional[FlashloanExecutor] = None
    if config.mode is ExecutionMode.LIVE:
        executor = FlashloanExecutor(
            web3,
            contract_address=config.flashloan_address or "",
            solo_address=addresses.dydx_solo,
            token_address=addresses.dai,
            private_key=config.private_key or "",
            wait_for_receipt=config.wait_for_receipt,
            gas_headroom_pct=config.gas_headroom_pct,
        )

    gas_oracle = GasOracle(
        client,
        default_units=config.gas_units,
        estimator=executor.estimate_gas if executor is not None else None,
    )
    evaluator = OpportunityEvaluator(
        kyber=kyber,
        uniswap=uniswap,
        gas_oracle=gas_oracle,
        notional=config.notional_dai_wei,
        min_profit=config.min_profit_wei,
    )

    shared_price = SharedPrice(value=config.recent_eth_price_wei)
    price_feed = EthPriceFeed(
        kyber.eth_price,
        shared_price,
        interval=config.price_refresh_interval,
        source=kyber.name,
    )

    return BotComponents(
        client=client,
        kyber=kyber,
        uniswap=uniswap,
        evaluator=evaluator,
        shared_price=shared_price,
        price_feed=price_feed,
        executor=executor,
    )


async def process_block(
    header: BlockHeader,
    evaluator: OpportunityEvaluator,
    state: BotState,
    shared_price: SharedPrice,
    executor: Optional[FlashloanExecutor] = None,
    mode: ExecutionMode = ExecutionMode.PAPER,
) -> Optional[ArbitrageOpportunity]:
    """Evaluate one head; in LIVE mode submit the chosen direction."""
    state.record_block(header)
    logger.info("New block received. block=%s", header.number)

    eth_price = shared_price.snapshot()
    try:
        opp = await evaluator.evaluate(header.number, eth_price)
    except Exception as exc:
        state.record_skip()
        logger.warning("skipping block=%s error=%s", header.number, exc)
        return None

    state.record_evaluation(opp)
    if opp is None:
        logger.info("No arbitrage opportunities found at block=%s", header.number)
        return None

    logger.info("Arbitrage opportunity found!\n%s", opp)

    if mode is ExecutionMode.LIVE and executor is not None:
        try:
            result = await executor.submit(opp)
        except Exception as exc:
            state.record_failed_submission()
            logger.error(
                "flash loan submission failed block=%s direction=%s error=%s",
                header.number,
                opp.direction.name,
                exc,
            )
        else:
            state.record_submission(result)

    return opp


async def run_arbitrage_bot(
    config: BotConfig,
    stop_event: Optional[asyncio.Event] = None,
    web3: Optional[Web3] = None,
) -> BotState:
    configure_flash_arb_logging()
    config.validate()

    stop_event = stop_event or asyncio.Event()
    client = ChainClient(web3) if web3 is not None else ChainClient.from_config(config.chain_config())
    if not await client.is_connected():
        raise ConnectionError(f"cannot reach node at {config.rpc_url}")

    components = build_components(config, client)
    logger.info(
        "Starting arbitrage bot mode=%s network=%s notional_dai=%s backpressure=%s",
        config.mode.value,
        config.network,
        config.amount_eth * config.recent_eth_price,
        config.backpressure.value,
    )
    if components.executor is not None:
        logger.info("Flash loans will be sent from %s", components.executor.address)

    channel = BlockChannel(config.backpressure, config.max_pending_blocks)
    if config.ws_url:
        source = NewHeadsSubscription(config.ws_url, channel)
    else:
        source = PollingHeadSource(client, channel, poll_interval=config.poll_interval)

    state = BotState()
    await components.price_feed.refresh_once()

    source_task = asyncio.create_task(source.run(stop_event))
    tasks: List[asyncio.Task] = [
        source_task,
        asyncio.create_task(components.price_feed.run(stop_event)),
    ]

    try:
        while not stop_event.is_set():
            try:
                header = await asyncio.wait_for(channel.get(), timeout=1.0)
            except asyncio.TimeoutError:
                if source_task.done():
                    exc = source_task.exception()
                    if exc is not None:
                        logger.error("block feed failed: %s", exc)
                    else:
                        logger.info("block feed ended")
                    break
                continue

            await process_block(
                header,
                components.evaluator,
                state,
                components.shared_price,
                executor=components.executor,
                mode=config.mode,
            )
    finally:
        stop_event.set()
        for t in tasks:
            t.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

        logger.info("final_summary %s", state.summary(blocks_dropped=channel.dropped))

    return state
