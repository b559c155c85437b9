"""Savestream command-line utility."""

import logging
from pathlib import Path

import click

from .config import CodecConfig
from .engine import decode, decode_len, decode_one, encode, stream_stats, trim
from .errors import SavestreamError
from .integrity.verification import verify_stream
from .storage.files import expand_inputs, read_bytes, read_snapshots, write_bytes_atomic


def _geometry(ctx: click.Context) -> CodecConfig:
    return ctx.obj['config']


@click.group()
@click.option('--block-size', type=int, default=None,
              help="Block size in bytes (default: $SAVESTREAM_BLOCK_SIZE or 256).")
@click.option('--super-block-multiple', type=int, default=None,
              help="Blocks per superblock (default: $SAVESTREAM_SUPER_BLOCK_MULTIPLE or 256).")
@click.option('-v', '--verbose', is_flag=True, help="Log per-frame progress.")
@click.pass_context
def main(ctx: click.Context, block_size, super_block_multiple, verbose):
    """Encode, decode and inspect v86 savestreams."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        config = CodecConfig.from_env()
        config = CodecConfig(
            block_size if block_size is not None else config.block_size,
            super_block_multiple if super_block_multiple is not None else config.super_block_multiple,
        ).validate()
    except SavestreamError as e:
        raise click.UsageError(str(e))
    ctx.obj = {'config': config}


@main.command('encode')
@click.argument('inputs', nargs=-1, required=True,
                type=click.Path(exists=True, path_type=Path))
@click.argument('output', type=click.Path(dir_okay=False, path_type=Path))
@click.pass_context
def encode_cmd(ctx, inputs, output):
    """Encode snapshot files (or directories of .bin files) into OUTPUT."""
    config = _geometry(ctx)
    paths = expand_inputs(inputs)
    if not paths:
        raise click.ClickException("no snapshot files found")

    try:
        stream = encode(read_snapshots(paths), config.block_size, config.super_block_multiple)
        write_bytes_atomic(output, stream)
    except SavestreamError as e:
        raise click.ClickException(str(e))

    click.echo(f"Encoded {len(paths)} save states to {output}")


@main.command('decode')
@click.argument('input', type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument('output_dir', type=click.Path(file_okay=False, path_type=Path))
@click.option('--index', type=int, default=None, help="Decode only this index.")
@click.pass_context
def decode_cmd(ctx, input, output_dir, index):
    """Decode a savestream into state_NNNN.bin files in OUTPUT_DIR."""
    config = _geometry(ctx)
    output_dir.mkdir(parents=True, exist_ok=True)

    try:
        stream = read_bytes(input)
        if index is not None:
            state = decode_one(stream, index, config.block_size, config.super_block_multiple)
            target = output_dir / f"state_{index:04d}.bin"
            write_bytes_atomic(target, state)
            click.echo(f"Decoded state {index} to {target}")
            return

        count = 0
        for i, state in enumerate(decode(stream, config.block_size, config.super_block_multiple)):
            write_bytes_atomic(output_dir / f"state_{i:04d}.bin", state)
            count += 1
    except SavestreamError as e:
        raise click.ClickException(str(e))

    click.echo(f"Decoded {count} states to {output_dir}")


@main.command('info')
@click.argument('input', type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_context
def info_cmd(ctx, input):
    """Show frame count and deduplication statistics."""
    config = _geometry(ctx)
    try:
        stream = read_bytes(input)
        stats = stream_stats(stream, config.block_size, config.super_block_multiple)
    except SavestreamError as e:
        raise click.ClickException(str(e))

    click.echo(f"Savestream file: {input}")
    click.echo(f"Number of save states: {stats['frames']}")
    click.echo(f"Savestream size: {stats['stream_bytes']:,} bytes")
    click.echo(f"Unique blocks: {stats['unique_blocks']:,}")
    click.echo(f"Unique superblocks: {stats['unique_superblocks']:,}")
    if stats['frames'] > 0:
        click.echo(f"Average save state size: {stats['stream_bytes'] / stats['frames']:,.2f} bytes")
    if stats['stream_bytes'] > 0 and stats['aligned_bytes'] > 0:
        click.echo(f"Compression ratio: {stats['aligned_bytes'] / stats['stream_bytes']:,.2f}x")


@main.command('trim')
@click.argument('input', type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument('output', type=click.Path(dir_okay=False, path_type=Path))
@click.argument('start_index', type=int)
@click.argument('end_index', type=int, required=False, default=None)
@click.pass_context
def trim_cmd(ctx, input, output, start_index, end_index):
    """Keep only states START_INDEX up to (not including) END_INDEX."""
    config = _geometry(ctx)
    try:
        stream = read_bytes(input)
        trimmed = trim(stream, start_index, end_index, config.block_size, config.super_block_multiple)
        write_bytes_atomic(output, trimmed)
        kept = decode_len(trimmed)
    except SavestreamError as e:
        raise click.ClickException(str(e))

    end = "the end" if end_index is None else str(end_index)
    click.echo(f"Trimmed savestream saved to {output} from index {start_index} to {end} ({kept} states)")


@main.command('verify')
@click.argument('input', type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_context
def verify_cmd(ctx, input):
    """Check that a savestream can be decoded in a single pass."""
    config = _geometry(ctx)
    try:
        stream = read_bytes(input)
    except SavestreamError as e:
        raise click.ClickException(str(e))

    is_valid, errors = verify_stream(stream, config.block_size, config.super_block_multiple)
    for error in errors:
        click.echo(error, err=True)
    if not is_valid:
        raise click.ClickException(f"{input} failed verification")
    click.echo(f"{input}: OK")


if __name__ == "__main__":
    main()
