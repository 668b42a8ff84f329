import argparse
import asyncio
import json
import os
import sys

from storeflow.core.connectors.manager import Datasources
from storeflow.core.observability import configure_logging
from storeflow.core.runtime.settings import load_settings
from storeflow.core.models import (
    ActionConfiguration,
    ActionExecutionResult,
    DatasourceConfiguration,
    DBAuth,
    Property,
    S3Action,
)


def _add_datasource_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--access-key", default=None, help="AWS access key (or STOREFLOW_S3_ACCESS_KEY)")
    p.add_argument("--secret-key", default=None, help="AWS secret key (or STOREFLOW_S3_SECRET_KEY)")
    p.add_argument("--region", default=None, help="Region, e.g. us-east-1 (or STOREFLOW_S3_REGION)")
    p.add_argument("--endpoint", default=None, help="Optional S3-compatible endpoint URL")


def _datasource_from_args(args, env: dict) -> DatasourceConfiguration:
    return DatasourceConfiguration(
        authentication=DBAuth(
            username=args.access_key or env.get("STOREFLOW_S3_ACCESS_KEY"),
            password=args.secret_key or env.get("STOREFLOW_S3_SECRET_KEY"),
        ),
        properties=[Property(key="region", value=args.region or env.get("STOREFLOW_S3_REGION"))],
        endpoint=args.endpoint or None,
    )


def _action_from_args(args) -> ActionConfiguration:
    return ActionConfiguration(
        path=args.path,
        body=args.body,
        plugin_specified_templates=[
            Property(key="action", value=args.action),
            Property(key="bucket", value=args.bucket),
        ],
    )


async def _exec(ds: Datasources, cfg: DatasourceConfiguration, action: ActionConfiguration):
    try:
        await ds.create("cli", cfg)
    except Exception as e:
        return ActionExecutionResult.from_error(e)
    try:
        return await ds.execute("cli", cfg, action)
    finally:
        await ds.close_all()


def main(argv=None) -> int:
    argv = argv or sys.argv[1:]
    parser = argparse.ArgumentParser(prog="storeflow", description="storeflow S3 connector CLI")
    sp = parser.add_subparsers(dest="cmd", required=True)

    valp = sp.add_parser("validate", help="Validate datasource configuration (no network)")
    _add_datasource_args(valp)

    testp = sp.add_parser("test", help="Test datasource connectivity (lists buckets)")
    _add_datasource_args(testp)

    execp = sp.add_parser("exec", help="Execute one action against a bucket")
    _add_datasource_args(execp)
    execp.add_argument("--action", required=True, choices=[a.value for a in S3Action])
    execp.add_argument("--bucket", required=True, help="Bucket name")
    execp.add_argument("--path", default=None, help="Object key (READ_FILE/UPLOAD_FILE_FROM_BODY/DELETE_FILE)")
    execp.add_argument("--body", default=None, help="Text content (UPLOAD_FILE_FROM_BODY)")

    args = parser.parse_args(argv)
    env = {k: str(v) for k, v in os.environ.items()}
    settings = load_settings(env=env)
    configure_logging(settings)

    cfg = _datasource_from_args(args, env)
    ds = Datasources(plugin="s3", settings=settings)

    if args.cmd == "validate":
        invalids = sorted(ds.validate(cfg))
        print(json.dumps({"valid": not invalids, "invalids": invalids}, ensure_ascii=False))
        return 2 if invalids else 0

    if args.cmd == "test":
        res = asyncio.run(ds.test(cfg))
        print(json.dumps({"ok": res.ok, "message": res.message}, ensure_ascii=False))
        return 0 if res.ok else 1

    if args.cmd == "exec":
        invalids = sorted(ds.validate(cfg))
        if invalids:
            print(json.dumps({"valid": False, "invalids": invalids}, ensure_ascii=False))
            return 2
        res = asyncio.run(_exec(ds, cfg, _action_from_args(args)))
        print(json.dumps(res.model_dump(), ensure_ascii=False))
        return 0 if res.is_execution_success else 1

    return 2


if __name__ == "__main__":
    raise SystemExit(main())
