from .profile import Profile
from .skill import SkillOffered, SkillWanted
from .match import Connection, ConnectionStatus, make_pair_key
from .message import Message
