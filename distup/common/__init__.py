# Copyright 2023-2025. WebPros International GmbH. All rights reserved.

from . import action
from . import backup
from . import dist
from . import files
from . import hooks
from . import log
from . import prompt
from . import repos
from . import resolver
from . import snapshot
from . import util
from . import version
from . import writers
