#!/usr/bin/env python3
import argparse
import json
import os
import sys
from collections.abc import Iterable

from tedge_oscar.models import DEFAULT_MAPPER, Config
from tedge_oscar.repositories import ConfigRepository, ImageRepository, InstanceRepository
from tedge_oscar.services.deploy_service import DeployService
from tedge_oscar.services.load_service import LoadService
from tedge_oscar.services.pull_service import PullService
from tedge_oscar.utils.archive import GZIP_SUFFIXES
from tedge_oscar.utils.logging import set_level, setup_logger
from tedge_oscar.utils.reference import parse_name

INSTANCE_COLUMNS = ["name", "path", "topics", "image", "imageVersion"]
IMAGE_COLUMNS = ["name", "version", "path"]
OUTPUT_FORMATS = ["table", "jsonl", "tsv"]
LOG_LEVELS = ["debug", "info", "warning", "error", "critical"]


def default_output() -> str:
    return "table" if sys.stdout.isatty() else "jsonl"


def render(rows: Iterable[dict[str, str]], columns: list[str], output: str) -> int:
    rows = [{c: row.get(c, "") for c in columns} for row in rows]
    if output == "jsonl":
        for row in rows:
            print(json.dumps(row, ensure_ascii=False))
    elif output == "tsv":
        for row in rows:
            print("\t".join(row.values()))
    else:
        widths = {c: max([len(c)] + [len(row[c]) for row in rows]) for c in columns}
        print("  ".join(c.upper().ljust(widths[c]) for c in columns).rstrip())
        for row in rows:
            print("  ".join(row[c].ljust(widths[c]) for c in columns).rstrip())
    return len(rows)


def tarball_name(source: str) -> str:
    name = os.path.basename(source.rstrip("/").split("?")[0])
    for suffix in (".tar",) + GZIP_SUFFIXES:
        name = name.removesuffix(suffix)
    return name.removesuffix(".tar")


def images_pull(config: Config, args: argparse.Namespace) -> None:
    name = parse_name(args.image)
    output_dir = args.output_dir or os.path.join(config.image_dir, name)
    tarball_path = ""
    if args.tarball:
        tarball_path = os.path.join(os.path.dirname(output_dir), f"{os.path.basename(name)}.tar")
    PullService(config).run(args.image, output_dir, tarball_path, cache_disabled=args.no_cache)


def images_load(config: Config, args: argparse.Namespace) -> None:
    output_dir = args.output_dir or os.path.join(config.image_dir, args.name or tarball_name(args.source))
    LoadService().run(args.source, output_dir)


def images_list(config: Config, args: argparse.Namespace) -> None:
    rows = (
        {"name": i.name, "version": i.version, "path": i.path}
        for i in ImageRepository(config.image_dir).find_all()
    )
    if not render(rows, _columns(args, IMAGE_COLUMNS), args.output):
        print("No flow images found.", file=sys.stderr)


def instances_list(config: Config, args: argparse.Namespace) -> None:
    repo = InstanceRepository(
        config.get_deploy_dir(args.mapper),
        image_dir=config.image_dir,
        display_deploy_dir=config.get_display_deploy_dir(args.mapper),
    )
    if not render((s.as_row() for s in repo.find_all()), _columns(args, INSTANCE_COLUMNS), args.output):
        print("No flow instances are currently deployed.", file=sys.stderr)


def instances_deploy(config: Config, args: argparse.Namespace) -> None:
    DeployService(config).run(
        args.instance_name,
        args.image,
        topics=args.topics,
        interval=args.interval,
        deploy_dir=config.get_deploy_dir(args.mapper),
    )


def instances_remove(config: Config, args: argparse.Namespace) -> None:
    repo = InstanceRepository(config.get_deploy_dir(args.mapper))
    if repo.remove(args.instance_name):
        print(f"Instance {args.instance_name} removed ({repo.path_for(args.instance_name)})", file=sys.stderr)
    else:
        print(f"Instance {args.instance_name} does not exist, skipping removal.", file=sys.stderr)


def _columns(args: argparse.Namespace, default: list[str]) -> list[str]:
    return [c.strip() for c in args.select.split(",")] if args.select else default


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="tedge-oscar", description="Manage thin-edge.io flow images and instances")
    parser.add_argument("--config", help="Path to the tedge-oscar configuration file")
    parser.add_argument("--log-level", type=str.lower, choices=LOG_LEVELS, help="Log level")
    groups = parser.add_subparsers(dest="group", required=True)

    images = groups.add_parser("images", help="Manage flow images").add_subparsers(dest="command", required=True)
    pull = images.add_parser("pull", help="Pull a flow image from an OCI registry")
    pull.add_argument("image")
    pull.add_argument("--output-dir", help="Directory to download the artifact contents to (default: config image_dir)")
    pull.add_argument("--tarball", action="store_true", help="Also save the artifact as a tarball")
    pull.add_argument("--no-cache", action="store_true", help="Do not use the local blob cache")
    pull.set_defaults(handler=images_pull)

    load = images.add_parser("load", help="Load a flow image from a tarball file or URL")
    load.add_argument("source")
    load.add_argument("--name", help="Image name (default: derived from the tarball name)")
    load.add_argument("--output-dir", help="Directory to extract the tarball to")
    load.set_defaults(handler=images_load)

    image_list = images.add_parser("list", aliases=["ls"], help="List local flow images")
    image_list.add_argument("-o", "--output", choices=OUTPUT_FORMATS, default=default_output())
    image_list.add_argument("--select", help="Comma separated list of columns to display")
    image_list.set_defaults(handler=images_list)

    instances = groups.add_parser("instances", help="Manage flow instances").add_subparsers(dest="command", required=True)
    instance_list = instances.add_parser("list", aliases=["ps", "ls"], help="List deployed flow instances")
    instance_list.add_argument("--mapper", default=DEFAULT_MAPPER, help="Mapper associated with the flow")
    instance_list.add_argument("-o", "--output", choices=OUTPUT_FORMATS, default=default_output())
    instance_list.add_argument("--select", help="Comma separated list of columns to display (e.g. name,image,imageVersion)")
    instance_list.set_defaults(handler=instances_list)

    deploy = instances.add_parser("deploy", aliases=["run"], help="Deploy a flow instance")
    deploy.add_argument("instance_name")
    deploy.add_argument("image")
    deploy.add_argument("--topics", action="append", default=[], help="Input topics (repeatable)")
    deploy.add_argument("--interval", help="Interval applied to every step")
    deploy.add_argument("--mapper", default=DEFAULT_MAPPER, help="Mapper to deploy the flow to")
    deploy.set_defaults(handler=instances_deploy)

    remove = instances.add_parser("remove", aliases=["rm"], help="Remove a deployed flow instance")
    remove.add_argument("instance_name")
    remove.add_argument("--mapper", default=DEFAULT_MAPPER, help="Mapper to remove the flow from")
    remove.set_defaults(handler=instances_remove)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    if args.log_level:
        set_level(args.log_level)
    logger = setup_logger("tedge_oscar")
    try:
        config = ConfigRepository(args.config).load()
        args.handler(config, args)
        return 0
    except Exception as e:
        logger.error(f"{args.group} {args.command} failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
