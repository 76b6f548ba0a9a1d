#!/usr/bin/env python3
"""
Run the aggregation API with Prometheus export.

Usage:
  LEDGER_AGG_CONFIG=config/ledger-aggregation.json python scripts/run_service.py
"""

import argparse
from pathlib import Path

import uvicorn

from ledger_aggregation.config import load_app_config
from ledger_aggregation.service import AggregationContract
from ledger_aggregation.service.api import create_app
from ledger_aggregation.utils import CompositeMetrics, InMemoryMetrics, configure_logging, get_logger
from ledger_aggregation.utils.prometheus_metrics import PrometheusMetrics


def main() -> None:
    parser = argparse.ArgumentParser(description="Run the ledger aggregation API")
    parser.add_argument("--config", type=Path, default=None, help="Config file (default: $LEDGER_AGG_CONFIG)")
    args = parser.parse_args()

    config, path = load_app_config(args.config)
    configure_logging(config.service.log_level, json_output=config.service.json_logs)
    logger = get_logger("run_service")
    logger.info("Loaded config from %s", path)

    sinks = [InMemoryMetrics()]
    if config.service.metrics_port:
        prometheus = PrometheusMetrics(engine_id=f"{config.service.host}:{config.service.port}")
        prometheus.start_server(config.service.metrics_port)
        sinks.append(prometheus)

    contract = AggregationContract.from_config(config, metrics=CompositeMetrics(sinks))
    uvicorn.run(create_app(contract), host=config.service.host, port=config.service.port)


if __name__ == "__main__":
    main()
