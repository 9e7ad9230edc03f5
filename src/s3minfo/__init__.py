from s3minfo.types import EventShape, Event, Pattern, Instrument
from s3minfo.song import Song
from s3minfo.playback import RowControl, RowTiming, Playback, PlaybackSimulator
from s3minfo.s3msong import S3MSong

__all__ = ['EventShape', 'Event', 'Pattern', 'Instrument', 'Song',
           'RowControl', 'RowTiming', 'Playback', 'PlaybackSimulator', 'S3MSong']
