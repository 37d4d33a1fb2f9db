"""Command-line entry point.

Run one ingestion
-----------------
    python -m catalog_ingest run --max-datasets 10

Serve the trigger endpoint
--------------------------
    python -m catalog_ingest serve --port 3001
"""

from __future__ import annotations

import argparse
import json
import logging

from catalog_ingest.config import configure_logging, settings

logger = logging.getLogger("catalog_ingest")


def _run(args: argparse.Namespace) -> int:
    from catalog_ingest.catalog import CkanCatalog
    from catalog_ingest.context import build_context
    from catalog_ingest.ingestion.service import run_ingestion

    ctx = build_context(settings)
    try:
        catalog = CkanCatalog(
            settings.catalog_base_url,
            session=ctx.session,
            timeout=settings.request_timeout,
            max_retries=settings.max_retries,
        )
        report = run_ingestion(
            ctx,
            catalog,
            dataset_ids=args.dataset or None,
            max_datasets=args.max_datasets,
        )
    except KeyboardInterrupt:
        ctx.cancel()
        raise
    finally:
        ctx.close()

    print(json.dumps(report.summary(), indent=2))
    return 1 if report.failed else 0


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("catalog_ingest.serving.app:app", host=args.host, port=args.port)
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="catalog_ingest", description="Catalog → RAG ingestion")
    sub = parser.add_subparsers(dest="command", required=True)

    run_p = sub.add_parser("run", help="Run one ingestion and print the summary")
    run_p.add_argument(
        "--max-datasets",
        type=int,
        default=settings.max_datasets,
        help="Limit on listed datasets",
    )
    run_p.add_argument(
        "--dataset",
        action="append",
        default=[],
        help="Ingest only this dataset id (repeatable)",
    )
    run_p.set_defaults(func=_run)

    serve_p = sub.add_parser("serve", help="Start the HTTP trigger service")
    serve_p.add_argument("--host", default="0.0.0.0")
    serve_p.add_argument("--port", type=int, default=settings.port)
    serve_p.set_defaults(func=_serve)

    args = parser.parse_args(argv)
    configure_logging(settings.log_level)
    return args.func(args)


if __name__ == "__main__":
    raise SystemExit(main())
