import click
from flask.cli import with_appcontext
from sqlalchemy import select

from boneyard.extensions import db
from boneyard.models import Climb, ClimbLog, GradeVote, Video
from boneyard.helpers.errors import BoneyardError, StorageError
from boneyard.helpers.storage import delete_blob


@click.command("recompute-stats")
@click.option("--climb-id", default=None, help="Only recompute this climb.")
@with_appcontext
def recompute_stats_command(climb_id):
    """Recompute ascentCount / avgRating from the logs (manual sweep)."""
    from boneyard.helpers.stats import recompute_climb_stats, recompute_all_climb_stats

    if climb_id:
        try:
            stats = recompute_climb_stats(climb_id)
        except BoneyardError as e:
            raise click.ClickException(str(e))
        click.echo(f"{climb_id}: ascents={stats.ascent_count} avg={stats.avg_rating:.2f}")
        return

    results = recompute_all_climb_stats()
    for cid, stats in results.items():
        click.echo(f"{cid}: ascents={stats.ascent_count} avg={stats.avg_rating:.2f}")
    click.echo(f"Recomputed {len(results)} climbs.")


def find_orphans() -> dict:
    """Logs / votes / videos whose climb no longer exists."""
    climb_ids = select(Climb.id)
    return {
        "logs": ClimbLog.query.filter(ClimbLog.climb_id.not_in(climb_ids)).all(),
        "votes": GradeVote.query.filter(GradeVote.climb_id.not_in(climb_ids)).all(),
        "videos": Video.query.filter(Video.climb_id.not_in(climb_ids)).all(),
    }


@click.command("prune-orphans")
@click.option("--dry-run", is_flag=True, help="Only report what would be deleted.")
@with_appcontext
def prune_orphans_command(dry_run):
    """Delete logs, grade votes and videos left behind by deleted climbs."""
    orphans = find_orphans()

    for kind, rows in orphans.items():
        click.echo(f"orphaned {kind}: {len(rows)}")

    if dry_run:
        return

    video_urls = [v.url for v in orphans["videos"]]

    for rows in orphans.values():
        for row in rows:
            db.session.delete(row)
    db.session.commit()

    for url in video_urls:
        try:
            delete_blob(url)
        except StorageError as e:
            click.echo(f"warning: {e}", err=True)
    click.echo("Pruned.")


def register_commands(app):
    app.cli.add_command(recompute_stats_command)
    app.cli.add_command(prune_orphans_command)
