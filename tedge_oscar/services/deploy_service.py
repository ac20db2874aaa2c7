import logging
from collections.abc import MutableMapping, MutableSequence, Sequence
from typing import override

import tomlkit
from tomlkit import TOMLDocument
from tomlkit.exceptions import TOMLKitError

from tedge_oscar.errors import ArtifactMissingError, TemplateError
from tedge_oscar.models import Config
from tedge_oscar.repositories import ImageRepository, InstanceRepository
from tedge_oscar.services.pull_service import PullService
from tedge_oscar.services.service import Service
from tedge_oscar.utils.logging import setup_logger
from tedge_oscar.utils.maputil import set_nested_value
from tedge_oscar.utils.reference import parse_name
from tedge_oscar.utils.toml_loader import dump_document, load_document

TOPICS_PATH = ("input", "mqtt", "topics")


class DeployService(Service):
    """Turns a cached flow image into an instance definition in a deploy directory.

    The image's bundled template (``flow.toml`` or ``pipeline.toml``) is
    kept as-is apart from the overrides: every step runs the image
    entrypoint, the interval (if given) applies to all steps and the topics
    (if given) replace ``input.mqtt.topics``. Images without a template get a
    single-step definition. The instance file is regenerated on every deploy.
    """

    def __init__(self, config: Config, pull_service: PullService | None = None):
        self.config: Config = config
        self.images: ImageRepository = ImageRepository(config.image_dir)
        self.pull_service: PullService = pull_service or PullService(config)
        self.logger: logging.Logger = setup_logger("DeployService")

    @override
    def run(
        self,
        instance_name: str,
        image_ref: str,
        topics: Sequence[str] | None = None,
        interval: str | None = None,
        deploy_dir: str | None = None,
    ) -> str:
        topics = list(topics or [])
        deploy_dir = deploy_dir or self.config.get_deploy_dir()
        name = parse_name(image_ref)
        script_path = self.images.entrypoint(name)
        self.logger.debug(f"Entrypoint of {image_ref}: {script_path}")

        if not self.images.exists(name):
            self.logger.info(f"Image {image_ref} not found locally. Pulling...")
            self.pull_service.run(image_ref, self.images.artifact_dir(name))

        if not self.images.has_entrypoint(name):
            raise ArtifactMissingError(
                f"Image {image_ref} does not contain the expected entrypoint. path={script_path}"
            )

        template_path = self.images.find_template(name)
        if template_path:
            self.logger.info(f"Using flow definition {template_path}")
            document = self.from_template(template_path, script_path, topics, interval)
        else:
            document = self.minimal_document(script_path, topics, interval)

        content = dump_document(document)
        path = InstanceRepository(deploy_dir).save(instance_name, content)
        self.logger.info(f"Instance {instance_name} deployed at {path}")
        return path

    def from_template(
        self, template_path: str, script_path: str, topics: list[str], interval: str | None
    ) -> TOMLDocument:
        try:
            document = load_document(template_path)
        except (OSError, TOMLKitError) as e:
            raise TemplateError(f"Failed to parse {template_path}: {e}") from e
        if topics:
            self._set_topics(document, topics)
        steps = document.get("steps")
        if isinstance(steps, MutableSequence):
            for step in steps:
                if not isinstance(step, MutableMapping):
                    self.logger.warning(f"Ignoring step that is not a table in {template_path}: {step!r}")
                    continue
                step["script"] = script_path
                if interval:
                    step["interval"] = interval
        return document

    def minimal_document(self, script_path: str, topics: list[str], interval: str | None) -> TOMLDocument:
        document = tomlkit.document()
        step = tomlkit.table()
        step["script"] = script_path
        if interval:
            step["interval"] = interval
        steps = tomlkit.aot()
        steps.append(step)
        document["steps"] = steps
        if topics:
            self._set_topics(document, topics)
        return document

    def _set_topics(self, document: TOMLDocument, topics: list[str]) -> None:
        try:
            set_nested_value(document, TOPICS_PATH, topics)
        except ValueError as e:
            raise TemplateError(f"Failed to set {'.'.join(TOPICS_PATH)}: {e}") from e
