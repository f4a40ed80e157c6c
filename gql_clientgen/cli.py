"""Command-line interface for gql-clientgen."""

import asyncio
import io
import shutil
import tarfile
import tempfile
import zipfile
from pathlib import Path

import click
import httpx

from .core.configuration import (
    BooleanTypeMapping,
    DataClassMemberNullability,
    EnumValueNaming,
    FloatTypeMapping,
    GenerationOrder,
    GraphQlGeneratorConfiguration,
    IdTypeMapping,
    IntegerTypeMapping,
    OutputType,
    parse_class_mapping,
    parse_headers,
)
from .core.context import (
    FileSystemEmitter,
    MultipleFileGenerationContext,
    SingleFileGenerationContext,
)
from .core.errors import GraphQlGeneratorError
from .core.generator import GraphQlGenerator
from .core.introspection import deserialize_schema, load_schema
from .core.naming import is_valid_identifier
from .core.retrieval import HTTP_METHODS, retrieve_schema, retrieve_schema_content
from .core.scalars import RegexScalarFieldTypeMappingProvider

ARCHIVE_SUFFIXES = (".zip", ".tar.gz", ".tgz")


def _extraction_target(root: Path, member_name: str) -> Path:
    target = (root / member_name).resolve()
    if not target.is_relative_to(root):
        raise ValueError(f"Unsafe path in archive: {member_name}")
    return target


def _extract_zip(archive_path: Path, root: Path):
    with zipfile.ZipFile(archive_path, "r") as zip_ref:
        for member in zip_ref.infolist():
            _extraction_target(root, member.filename)
        zip_ref.extractall(root)


def _extract_tar(archive_path: Path, root: Path):
    # only directories and regular files are extracted; links are skipped
    with tarfile.open(archive_path, "r:gz") as tar_ref:
        for member in tar_ref.getmembers():
            target = _extraction_target(root, member.name)
            if member.isdir():
                target.mkdir(parents=True, exist_ok=True)
            elif member.isfile():
                source = tar_ref.extractfile(member)
                if source is None:
                    continue
                target.parent.mkdir(parents=True, exist_ok=True)
                with source, open(target, "wb") as f:
                    shutil.copyfileobj(source, f)


def extract_archive(archive_path: Path) -> str:
    """Extract archive to temp directory. Returns path to extracted content.

    Raises ValueError for unsupported formats and for members that would be
    written outside the temp directory.
    """
    temp_dir = tempfile.mkdtemp()
    root = Path(temp_dir).resolve()
    try:
        if archive_path.suffix == ".zip":
            _extract_zip(archive_path, root)
        elif archive_path.name.endswith((".tar.gz", ".tgz")):
            _extract_tar(archive_path, root)
        else:
            raise ValueError(f"Unsupported archive format: {archive_path.suffix}")
    except Exception:
        shutil.rmtree(temp_dir, ignore_errors=True)
        raise
    return temp_dir


def _choices(enum_type) -> click.Choice:
    return click.Choice([member.value for member in enum_type])


@click.group()
@click.version_option()
def main():
    """GraphQL client generator for Python.

    Generate typed query builders and data models from a GraphQL schema.
    """
    pass


@main.command()
@click.option(
    "--schema",
    "-s",
    type=click.Path(exists=True),
    help="Introspection JSON, SDL file, SDL directory, or archive (.zip, .tar.gz, .tgz).",
)
@click.option(
    "--service-url",
    "-u",
    help="GraphQL endpoint to introspect instead of a local schema.",
)
@click.option(
    "--output",
    "-o",
    required=True,
    type=click.Path(),
    help="Output file (single-file) or directory (one-class-per-file).",
)
@click.option("--http-method", type=click.Choice(HTTP_METHODS, case_sensitive=False), default="POST", show_default=True)
@click.option("--header", "-H", "headers", multiple=True, help="HTTP header 'Name: value'; repeatable.")
@click.option("--class-prefix", default="", help="Prefix of every generated class name.")
@click.option("--class-suffix", default="", help="Suffix of every generated class name.")
@click.option(
    "--class-mapping",
    "-m",
    "class_mappings",
    multiple=True,
    help="GraphQL type to class name, 'Type:ClassName[,Other:Name]'; repeatable.",
)
@click.option("--output-type", type=_choices(OutputType), default=OutputType.SINGLE_FILE.value, show_default=True)
@click.option("--package-name", help="Package name of one-class-per-file output; defaults to the directory name.")
@click.option("--project-file", help="Also write a project file with this name, e.g. pyproject.toml.")
@click.option("--integer-mapping", type=_choices(IntegerTypeMapping), default=IntegerTypeMapping.INT.value, show_default=True)
@click.option("--float-mapping", type=_choices(FloatTypeMapping), default=FloatTypeMapping.FLOAT.value, show_default=True)
@click.option("--id-mapping", type=_choices(IdTypeMapping), default=IdTypeMapping.STRING.value, show_default=True)
@click.option("--boolean-mapping", type=_choices(BooleanTypeMapping), default=BooleanTypeMapping.BOOLEAN.value, show_default=True)
@click.option(
    "--data-class-member-nullability",
    type=_choices(DataClassMemberNullability),
    default=DataClassMemberNullability.ALWAYS_NULLABLE.value,
    show_default=True,
)
@click.option(
    "--generation-order",
    type=_choices(GenerationOrder),
    default=GenerationOrder.DEFINED_BY_SCHEMA.value,
    show_default=True,
)
@click.option(
    "--enum-value-naming",
    type=_choices(EnumValueNaming),
    default=EnumValueNaming.UPPER_CASE.value,
    show_default=True,
)
@click.option("--include-deprecated-fields", is_flag=True, help="Generate deprecated fields and enum values.")
@click.option("--nullable-references", is_flag=True, help="Let str, Any, models and lists follow schema nullability.")
@click.option(
    "--regex-scalar-mapping",
    type=click.Path(exists=True, dir_okay=False),
    help="JSON file with regex scalar type mapping rules.",
)
@click.option("--indentation-size", type=click.IntRange(min=0), default=2, show_default=True)
@click.option(
    "--template-dir",
    type=click.Path(exists=True, file_okay=False),
    help="Directory with templates overriding the built-in ones.",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose output.",
)
def generate(
    schema: str | None,
    service_url: str | None,
    output: str,
    http_method: str,
    headers: tuple[str, ...],
    class_prefix: str,
    class_suffix: str,
    class_mappings: tuple[str, ...],
    output_type: str,
    package_name: str | None,
    project_file: str | None,
    integer_mapping: str,
    float_mapping: str,
    id_mapping: str,
    boolean_mapping: str,
    data_class_member_nullability: str,
    generation_order: str,
    enum_value_naming: str,
    include_deprecated_fields: bool,
    nullable_references: bool,
    regex_scalar_mapping: str | None,
    indentation_size: int,
    template_dir: str | None,
    verbose: bool,
):
    """Generate a Python client from a GraphQL schema.

    Examples:

        gql-clientgen generate --schema ./schema.json --output ./client.py

        gql-clientgen generate -u https://api.example.com/graphql -H "Authorization: Bearer x" -o client.py

        gql-clientgen generate -s ./schema.graphql -o ./client --output-type one-class-per-file
    """
    if (schema is None) == (service_url is None):
        raise click.UsageError("exactly one of --schema and --service-url is required")

    mappings = (integer_mapping, float_mapping, id_mapping, boolean_mapping)
    if "custom" in mappings and regex_scalar_mapping is None:
        raise click.UsageError("custom type mapping requires --regex-scalar-mapping")

    def log_message(message: str):
        if verbose:
            click.echo(message)
        elif message.startswith("WARNING: "):
            click.echo(message, err=True)

    output_path = Path(output).resolve()
    temp_dir = None

    try:
        provider = None
        if regex_scalar_mapping:
            provider = RegexScalarFieldTypeMappingProvider.from_json(
                Path(regex_scalar_mapping).read_text(encoding="utf-8")
            )

        configuration = GraphQlGeneratorConfiguration(
            class_prefix=class_prefix,
            class_suffix=class_suffix,
            custom_class_name_mapping=parse_class_mapping(list(class_mappings)),
            nullable_references=nullable_references,
            integer_type_mapping=IntegerTypeMapping(integer_mapping),
            float_type_mapping=FloatTypeMapping(float_mapping),
            id_type_mapping=IdTypeMapping(id_mapping),
            boolean_type_mapping=BooleanTypeMapping(boolean_mapping),
            include_deprecated_fields=include_deprecated_fields,
            generation_order=GenerationOrder(generation_order),
            data_class_member_nullability=DataClassMemberNullability(data_class_member_nullability),
            enum_value_naming=EnumValueNaming(enum_value_naming),
            indentation_size=indentation_size,
            scalar_field_type_mapping_provider=provider,
        )

        if service_url is not None:
            click.echo(f"Retrieving schema from {service_url}...")
            graphql_schema = asyncio.run(
                retrieve_schema(service_url, http_method=http_method, headers=parse_headers(list(headers)))
            )
        else:
            # Handle archives
            schema_path = Path(schema).resolve()
            if schema_path.is_file() and schema_path.name.lower().endswith(ARCHIVE_SUFFIXES):
                click.echo(f"Extracting archive {schema_path.name}...")
                temp_dir = extract_archive(schema_path)
                schema_path = Path(temp_dir)
                if verbose:
                    click.echo(f"  Extracted to: {temp_dir}")
            click.echo("Loading schema...")
            graphql_schema = load_schema(str(schema_path))

        if verbose:
            click.echo(f"  Types: {len([t for t in graphql_schema.types if not t.is_built_in])}")
            click.echo(f"  Directives: {len(graphql_schema.directives)}")

        generator = GraphQlGenerator(configuration, template_dir=template_dir)

        click.echo("Generating code...")
        if OutputType(output_type) is OutputType.SINGLE_FILE:
            # written only after generation succeeded
            buffer = io.StringIO()
            generator.generate(SingleFileGenerationContext(graphql_schema, buffer, log_message=log_message))
            output_path.parent.mkdir(parents=True, exist_ok=True)
            output_path.write_text(buffer.getvalue(), encoding="utf-8")
            click.echo(f"Done! Generated client in {output_path}")
        else:
            package = package_name or output_path.name
            if not is_valid_identifier(package):
                raise click.UsageError(f"'{package}' is not a valid package name; use --package-name")
            context = MultipleFileGenerationContext(
                graphql_schema,
                FileSystemEmitter(str(output_path)),
                package,
                project_file_name=project_file,
                log_message=log_message,
            )
            generator.generate(context)
            click.echo(f"Done! Generated {len(context.files)} files in {output_path}")
    except (GraphQlGeneratorError, httpx.HTTPError, OSError, ValueError) as e:
        raise click.ClickException(str(e)) from e
    finally:
        # Clean up temp directory
        if temp_dir:
            shutil.rmtree(temp_dir)


@main.command()
@click.option("--service-url", "-u", required=True, help="GraphQL endpoint to introspect.")
@click.option(
    "--output",
    "-o",
    required=True,
    type=click.Path(dir_okay=False),
    help="Output file for the introspection JSON.",
)
@click.option("--http-method", type=click.Choice(HTTP_METHODS, case_sensitive=False), default="POST", show_default=True)
@click.option("--header", "-H", "headers", multiple=True, help="HTTP header 'Name: value'; repeatable.")
def introspect(service_url: str, output: str, http_method: str, headers: tuple[str, ...]):
    """Fetch the introspection result of a GraphQL service.

    Examples:

        gql-clientgen introspect -u https://api.example.com/graphql -o schema.json
    """
    try:
        content = asyncio.run(
            retrieve_schema_content(service_url, http_method=http_method, headers=parse_headers(list(headers)))
        )
        deserialize_schema(content)
        output_path = Path(output).resolve()
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(content, encoding="utf-8")
    except (GraphQlGeneratorError, httpx.HTTPError, OSError) as e:
        raise click.ClickException(str(e)) from e

    click.echo(f"Schema written to {output_path}")


if __name__ == "__main__":
    main()
