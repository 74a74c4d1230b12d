"""image / image_file / image_labels tables

Revision ID: 3c1e8a2d9f40
Revises:
Create Date: 2025-09-02 10:12:41.118203

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "3c1e8a2d9f40"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _has_table(name: str) -> bool:
    bind = op.get_bind()
    insp = sa.inspect(bind)
    return name in insp.get_table_names()


def upgrade() -> None:
    # 이미지 업로드 파이프라인이 먼저 만들었을 수 있으므로 있으면 건너뜀
    if not _has_table("image"):
        op.create_table(
            "image",
            sa.Column("hash", sa.String(length=128), primary_key=True),
            sa.Column("unlabeled_since", sa.DateTime(), nullable=True),
            sa.Column("created_at", sa.DateTime(), server_default=sa.text("CURRENT_TIMESTAMP")),
        )

    if not _has_table("image_file"):
        op.create_table(
            "image_file",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column(
                "hash",
                sa.String(length=128),
                sa.ForeignKey("image.hash", ondelete="CASCADE"),
                nullable=False,
            ),
            sa.Column("src", sa.String(length=512), nullable=False, unique=True),
            sa.Column("width", sa.Integer(), nullable=True),
            sa.Column("height", sa.Integer(), nullable=True),
        )
        op.create_index("ix_image_file_hash", "image_file", ["hash"])

    if not _has_table("image_labels"):
        op.create_table(
            "image_labels",
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column(
                "hash",
                sa.String(length=128),
                sa.ForeignKey("image.hash", ondelete="CASCADE"),
                nullable=False,
            ),
            sa.Column("label", sa.String(length=128), nullable=False),
            sa.Column("index", sa.Integer(), nullable=False, server_default="0"),
            sa.UniqueConstraint("hash", "label", name="uq_image_label"),
        )
        op.create_index("ix_image_labels_label", "image_labels", ["label"])


def downgrade() -> None:
    if _has_table("image_labels"):
        op.drop_index("ix_image_labels_label", table_name="image_labels")
        op.drop_table("image_labels")
    if _has_table("image_file"):
        op.drop_index("ix_image_file_hash", table_name="image_file")
        op.drop_table("image_file")
    if _has_table("image"):
        op.drop_table("image")
