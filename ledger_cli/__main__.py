# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of Numisma Ledger.
#
# Numisma Ledger is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.


from ledger_cli.ledger_cmd import main

main()
