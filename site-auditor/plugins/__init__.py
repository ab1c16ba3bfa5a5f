from plugins.models import PluginDescriptor, PluginFailure
from plugins.pipeline import PluginPipeline
from plugins.builtin import content_plugin, default_plugins, link_count_plugin, load_time_plugin
