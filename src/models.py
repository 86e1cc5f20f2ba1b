from sqlalchemy import (
    Column, Integer, BigInteger, SmallInteger, String, Text, ForeignKey, DateTime,
    Index, CheckConstraint
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func


Base = declarative_base()

# SQLite only autoincrements INTEGER primary keys.
BigId = BigInteger().with_variant(Integer, "sqlite")


class User(Base):
    __tablename__ = 'users'

    user_id = Column(BigId, primary_key=True, autoincrement=True)
    spotify_id = Column(String(255), unique=True, nullable=False)
    username = Column(Text, nullable=False)
    token = Column(Text, nullable=False)
    refresh_token = Column(Text, nullable=False)
    creation_time = Column(DateTime(timezone=True), nullable=False, default=func.now())
    last_update_time = Column(DateTime(timezone=True), nullable=False, default=func.now())

    track_history = relationship("TrackHistory", back_populates="user", cascade="all, delete-orphan")
    artist_history = relationship("ArtistHistory", back_populates="user", cascade="all, delete-orphan")

    __table_args__ = (
        Index('idx_users_spotify_id', 'spotify_id'),
        Index('idx_users_last_update_time', 'last_update_time'),
    )


class _HistoryColumns:
    """One row per (user, capture, timeframe, rank)."""

    history_id = Column(BigId, primary_key=True, autoincrement=True)
    update_time = Column(DateTime(timezone=True), nullable=False, default=func.now())
    spotify_id = Column(String(255), nullable=False)
    timeframe = Column(SmallInteger, nullable=False)
    ranking = Column(SmallInteger, nullable=False)


class TrackHistory(_HistoryColumns, Base):
    __tablename__ = 'track_history'

    user_id = Column(BigId,
                     ForeignKey('users.user_id', onupdate='CASCADE', ondelete='CASCADE'),
                     nullable=False)
    user = relationship("User", back_populates="track_history")

    __table_args__ = (
        Index('idx_track_history_user_id', 'user_id'),
        Index('idx_track_history_update_time', 'update_time'),
        CheckConstraint('timeframe BETWEEN 0 AND 2', name='chk_track_history_timeframe'),
        CheckConstraint('ranking >= 0', name='chk_track_history_ranking'),
    )


class ArtistHistory(_HistoryColumns, Base):
    __tablename__ = 'artist_history'

    user_id = Column(BigId,
                     ForeignKey('users.user_id', onupdate='CASCADE', ondelete='CASCADE'),
                     nullable=False)
    user = relationship("User", back_populates="artist_history")

    __table_args__ = (
        Index('idx_artist_history_user_id', 'user_id'),
        Index('idx_artist_history_update_time', 'update_time'),
        CheckConstraint('timeframe BETWEEN 0 AND 2', name='chk_artist_history_timeframe'),
        CheckConstraint('ranking >= 0', name='chk_artist_history_ranking'),
    )
