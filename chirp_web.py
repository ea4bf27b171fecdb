# This file is part of Chirp, which is licensed under the GNU Affero General Public License (AGPL) version 3.0.
# You should have received a copy of the GPL along with this program. If not, see <http://www.gnu.org/licenses/>.

from chirp import create_app, db, cli
from chirp.constants import VERSION
from chirp.utils import get_store

app = create_app()
cli.register(app)


@app.shell_context_processor
def make_shell_context():
    return {'db': db, 'app': app, 'store': get_store(), 'VERSION': VERSION}
